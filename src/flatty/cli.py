"""
CLI entry point for flatty.

Provides a command-line interface for flattening directory trees into
token-budgeted text chunks.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import ChunkPlan, FileUnit, FlattyError, GroupMode, RunConfig, RunContext
from .config_loader import load_config, merge_cli_with_config
from .naming import chunk_filename
from .planner import plan_chunks
from .renderer import write_chunks
from .scanner import scan_corpus

# Initialize CLI app
app = typer.Typer(
    name="flatty",
    help="Convert directories into LLM-friendly text files sized to a token budget.",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"flatty version {__version__}")
        raise typer.Exit()


def build_run_config(
    path: Path,
    config_file: Optional[Path] = None,
    output_dir: Optional[Path] = None,
    group_by: Optional[GroupMode] = None,
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
    patterns: Optional[list[str]] = None,
    tokens: Optional[int] = None,
    separator: Optional[str] = None,
    no_gitignore: bool = False,
    skip_unreadable: bool = False,
    verbose: bool = False,
) -> RunConfig:
    """Combine config file values and CLI flags into a validated RunConfig.

    Positional patterns are treated as additional include patterns.

    Raises:
        ConfigError: If the config file or any resulting value is invalid.
    """
    project_config = load_config(path, config_file)
    include_patterns = [*(include or []), *(patterns or [])]
    merged = merge_cli_with_config(
        project_config,
        output_dir=output_dir,
        group_by=group_by,
        include=include_patterns or None,
        exclude=exclude or None,
        tokens=tokens,
        separator=separator,
        no_gitignore=no_gitignore,
        skip_unreadable=skip_unreadable,
    )
    return RunConfig(root=path, verbose=verbose, **merged)


def _warn_skipped(rel_path: str, error: Exception) -> None:
    console.print(f"[yellow]Warning: Skipping unreadable {rel_path}: {error}[/yellow]")


def _describe_keys(plan: ChunkPlan) -> str:
    if not plan.group_keys:
        return "-"
    return ", ".join(plan.group_keys)


@app.command()
def flatten(
    patterns: Optional[list[str]] = typer.Argument(
        None,
        help="Extra include patterns (same as --include).",
        show_default=False,
    ),
    # Input options
    path: Path = typer.Option(
        Path("."),
        "--path", "-p",
        help="Directory to flatten (default: current directory).",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: flatty.toml / flatty.yml in the directory).",
    ),

    # Filter options
    include: Optional[list[str]] = typer.Option(
        None,
        "--include", "-i",
        help="Include only files matching pattern (repeatable).",
    ),
    exclude: Optional[list[str]] = typer.Option(
        None,
        "--exclude", "-x",
        help="Exclude files matching pattern (repeatable).",
    ),
    no_gitignore: bool = typer.Option(
        False,
        "--no-gitignore",
        help="Don't respect .gitignore files.",
    ),
    skip_unreadable: bool = typer.Option(
        False,
        "--skip-unreadable",
        help="Skip unreadable files with a warning instead of aborting.",
    ),

    # Chunking options
    group_by: Optional[GroupMode] = typer.Option(
        None,
        "--group-by", "-g",
        help="Grouping mode: 'directory' (default), 'type', or 'size'.",
        case_sensitive=False,
    ),
    tokens: Optional[int] = typer.Option(
        None,
        "--tokens", "-t",
        help="Target token limit per file (default: 100000).",
        min=1,
    ),

    # Output options
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir", "-o",
        help="Output directory (default: ~/flattened).",
    ),
    separator: Optional[str] = typer.Option(
        None,
        "--separator",
        help="Delimiter line around each file path (default: ---).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show detailed progress.",
    ),

    # Version
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """
    Flatten a directory into token-budgeted text files.

    Examples:

        # Process current directory
        flatty flatten

        # Only Swift and Obj-C files
        flatty flatten -i "*.swift" -i "*.h" -i "*.m"

        # Group similar files together
        flatty flatten --group-by type

        # Even chunks of 50k tokens
        flatty flatten --group-by size -t 50000
    """
    start_time = time.time()

    try:
        config = build_run_config(
            path=path,
            config_file=config_file,
            output_dir=output_dir,
            group_by=group_by,
            include=include,
            exclude=exclude,
            patterns=patterns,
            tokens=tokens,
            separator=separator,
            no_gitignore=no_gitignore,
            skip_unreadable=skip_unreadable,
            verbose=verbose,
        )
    except FlattyError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    context = RunContext.from_config(config)

    console.print("[bold]Starting Flatty...[/bold]")
    console.print(f"[cyan]Output directory:[/cyan] {config.output_dir}")
    if verbose:
        console.print("[dim]Verbose mode enabled[/dim]")

    def report_file(unit: FileUnit) -> None:
        if verbose:
            console.print(f"[dim]  Scanning: {unit.relative_path} (~{unit.size_estimate:,} tokens)[/dim]")

    def report_chunk(plan: ChunkPlan, output_path: Path) -> None:
        console.print(
            f"  📄 {output_path.name} "
            f"[dim](~{plan.total_size:,} tokens, {plan.file_count} files)[/dim]"
        )
        if verbose:
            console.print(f"[dim]     groups: {_describe_keys(plan)}[/dim]")

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Analyzing repository size...", total=None)
            manifest, stats = scan_corpus(config, on_file=report_file, on_skip=_warn_skipped)

        if manifest.is_empty:
            console.print("[yellow]No files found matching criteria. Nothing to write.[/yellow]")
            return

        console.print(
            f"[green]Found {len(manifest)} files totaling approximately "
            f"{manifest.total_size:,} tokens[/green]"
        )

        if config.mode is not GroupMode.TYPE and manifest.total_size <= config.token_limit:
            console.print("Repository fits within token limit. Creating single consolidated file...")
        else:
            console.print(f"Processing by {config.mode.value}...")

        plans = plan_chunks(manifest, config.token_limit, config.mode)
        output_files = write_chunks(plans, manifest, context, on_written=report_chunk)

    except FlattyError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            import traceback
            console.print(traceback.format_exc())
        raise typer.Exit(1)

    elapsed = time.time() - start_time

    # Print summary
    console.print()
    console.print("[bold green]✓ Processing complete![/bold green]")
    console.print()
    console.print("[cyan]Statistics:[/cyan]")
    console.print(f"  Files scanned: {stats.files_scanned}")
    console.print(f"  Files included: {stats.files_included}")
    if config.respect_gitignore:
        console.print(
            f"  Skipped by .gitignore: {stats.files_skipped_gitignore} files, "
            f"{stats.dirs_skipped_gitignore} directories"
        )
    if stats.files_skipped_unreadable:
        console.print(f"  Files skipped (unreadable): {stats.files_skipped_unreadable}")
    console.print(f"  Chunks created: {len(output_files)}")
    console.print(f"  Total tokens: ~{stats.total_tokens_estimated:,}")
    console.print(f"  Processing time: {elapsed:.2f}s")
    console.print()
    console.print(f"[cyan]Files saved in:[/cyan] {config.output_dir}")


@app.command()
def plan(
    patterns: Optional[list[str]] = typer.Argument(
        None,
        help="Extra include patterns (same as --include).",
        show_default=False,
    ),
    path: Path = typer.Option(
        Path("."),
        "--path", "-p",
        help="Directory to analyze (default: current directory).",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="Config file (default: flatty.toml / flatty.yml in the directory).",
    ),
    include: Optional[list[str]] = typer.Option(
        None,
        "--include", "-i",
        help="Include only files matching pattern (repeatable).",
    ),
    exclude: Optional[list[str]] = typer.Option(
        None,
        "--exclude", "-x",
        help="Exclude files matching pattern (repeatable).",
    ),
    no_gitignore: bool = typer.Option(
        False,
        "--no-gitignore",
        help="Don't respect .gitignore files.",
    ),
    skip_unreadable: bool = typer.Option(
        False,
        "--skip-unreadable",
        help="Skip unreadable files with a warning instead of aborting.",
    ),
    group_by: Optional[GroupMode] = typer.Option(
        None,
        "--group-by", "-g",
        help="Grouping mode: 'directory' (default), 'type', or 'size'.",
        case_sensitive=False,
    ),
    tokens: Optional[int] = typer.Option(
        None,
        "--tokens", "-t",
        help="Target token limit per file (default: 100000).",
        min=1,
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the plan as JSON.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="List the files in each chunk.",
    ),
) -> None:
    """
    Show how a directory would be chunked without writing anything.

    Uses the same scanning and planning logic as 'flatten' so the reported
    chunks match what would be written.
    """
    try:
        config = build_run_config(
            path=path,
            config_file=config_file,
            group_by=group_by,
            include=include,
            exclude=exclude,
            patterns=patterns,
            tokens=tokens,
            no_gitignore=no_gitignore,
            skip_unreadable=skip_unreadable,
            verbose=verbose,
        )
        context = RunContext.from_config(config)
        manifest, stats = scan_corpus(config, on_skip=_warn_skipped)
        plans = list(plan_chunks(manifest, config.token_limit, config.mode))
    except FlattyError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if as_json:
        console.print_json(data={
            "chunks": [
                {**p.to_dict(), "filename": chunk_filename(p, context)} for p in plans
            ],
            "mode": config.mode.value,
            "stats": stats.to_dict(),
            "token_limit": config.token_limit,
        })
        return

    console.print(f"\n[bold]Project: {context.project_name}[/bold]\n")

    if manifest.is_empty:
        console.print("[yellow]No files found matching criteria.[/yellow]")
        return

    console.print("[cyan]Categories detected:[/cyan]")
    for category, file_count in sorted(stats.categories_detected.items(), key=lambda x: (-x[1], x[0])):
        console.print(f"  {category}: {file_count} files")

    console.print(
        f"\n[cyan]Chunks ({config.mode.value} mode, limit {config.token_limit:,} tokens):[/cyan]"
    )
    for p in plans:
        over = " [yellow](over limit)[/yellow]" if p.total_size > config.token_limit else ""
        console.print(
            f"  {p.ordinal:>3}. {chunk_filename(p, context)} "
            f"(~{p.total_size:,} tokens, {p.file_count} files){over}"
        )
        if verbose:
            console.print(f"[dim]       groups: {_describe_keys(p)}[/dim]")
            for unit in p.files:
                console.print(f"[dim]       {unit.relative_path} (~{unit.size_estimate:,})[/dim]")

    console.print("\n[cyan]Statistics:[/cyan]")
    console.print(f"  Total files scanned: {stats.files_scanned}")
    console.print(f"  Files included: {stats.files_included}")
    console.print(f"  Files skipped (default excludes): {stats.files_skipped_default}")
    console.print(f"  Files skipped (include/exclude): "
                  f"{stats.files_skipped_include + stats.files_skipped_exclude}")
    console.print(f"  Files skipped (gitignore): {stats.files_skipped_gitignore}")
    console.print(f"  Directories skipped (gitignore): {stats.dirs_skipped_gitignore}")
    console.print(f"  Files skipped (binary): {stats.files_skipped_binary}")
    console.print(f"  Total tokens: ~{stats.total_tokens_estimated:,}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
