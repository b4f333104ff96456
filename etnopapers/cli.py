"""CLI interface for ethnobotany metadata extraction"""
import json
import logging
import time
import traceback
from pathlib import Path
from typing import List, Optional, Tuple

import click

from .config import ConfigStore
from .duplicate_detector import DuplicateDetector
from .errors import EtnoPapersError
from .extractor import Complete, ExtractionPipeline, NeedsManualEdit, ProgressUpdate
from .logging_setup import setup_logging
from .models import ArticleRecord
from .storage import RecordStore
from .text_extractor import PdfConverter


def _short(record: ArticleRecord) -> str:
    title = record.title or "(sem título)"
    if len(title) > 70:
        title = title[:67] + "..."
    year = record.year if record.year is not None else "?"
    return f"{record.id}  {year}  {title}"


def _print_progress(update: ProgressUpdate):
    click.echo(f"  [{update.percent:3d}%] {update.message}")


def process_pdf_file(pipeline: ExtractionPipeline,
                     detector: DuplicateDetector,
                     pdf_path: Path,
                     output_dir: Optional[Path] = None,
                     save: bool = False,
                     verbose: bool = False) -> bool:
    """Extract one PDF, report the outcome and optionally persist it"""
    click.echo(f"Processing: {pdf_path.name}")

    start_ts = time.perf_counter()
    try:
        outcome = pipeline.extract_from_file(str(pdf_path), on_progress=_print_progress if verbose else None)
    except EtnoPapersError as e:
        click.echo(f"  Error: {e.message}", err=True)
        if verbose:
            traceback.print_exc()
        return False
    elapsed_s = time.perf_counter() - start_ts

    record = outcome.record
    if isinstance(outcome, NeedsManualEdit):
        click.echo("  Partial record, manual completion needed:")
        for error in outcome.errors:
            click.echo(f"    - {error}")
    else:
        click.echo(f"  Complete: {record.title}")

    store = pipeline.store
    if store is not None:
        duplicates = detector.score_duplicates(record, store)
        for existing, score in duplicates:
            click.echo(f"  Possible duplicate ({score:.0%}): {_short(existing)}")

    if output_dir:
        output_path = output_dir / f"{pdf_path.stem}_record.json"
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(record.to_json_dict(), f, indent=2, ensure_ascii=False)
        click.echo(f"  Record saved to: {output_path}")

    # Auto-save already stored complete records
    if save and store is not None and store.get_by_id(record.id) is None:
        if isinstance(outcome, Complete) or pipeline.validator.is_valid_for_saving(record):
            try:
                store.create(record)
                click.echo(f"  Stored as {record.id}")
            except EtnoPapersError as e:
                click.echo(f"  Not stored: {e.message}", err=True)
        else:
            click.echo("  Not stored: title, authors and year are required", err=True)

    click.echo(f"  Time: {elapsed_s:.2f}s | Provider: {record.ai_agent or '-'}")
    return True


@click.group()
@click.option('--config', '-c', 'config_path',
              type=click.Path(dir_okay=False, path_type=Path),
              help='JSON configuration file (default: ~/Documents/EtnoPapers/config.json)')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def main(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """
    Extract ethnobotanical metadata from scientific article PDFs.

    \b
    etnopapers extract artigo.pdf --save
    etnopapers records list
    etnopapers duplicates
    """
    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj['config'] = ConfigStore(str(config_path) if config_path else None)
    ctx.obj['verbose'] = verbose


def _store(ctx: click.Context) -> RecordStore:
    try:
        settings = ctx.obj['config'].load()
    except EtnoPapersError as e:
        raise click.ClickException(e.message)
    return RecordStore(settings.data_dir, settings.record_limit)


@main.command()
@click.argument('pdf_paths', nargs=-1, required=True,
                type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output-dir', '-o',
              type=click.Path(file_okay=False, path_type=Path),
              help='Directory to save extracted records as JSON')
@click.option('--save', is_flag=True, help='Store extracted records in the local data file')
@click.pass_context
def extract(ctx: click.Context, pdf_paths: Tuple[Path, ...], output_dir: Optional[Path], save: bool):
    """Extract metadata from one or more PDF files."""
    verbose = ctx.obj['verbose']
    try:
        pipeline = ExtractionPipeline.from_config(ctx.obj['config'])
    except EtnoPapersError as e:
        raise click.ClickException(e.message)

    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    detector = DuplicateDetector()
    succeeded = 0
    for pdf_path in pdf_paths:
        if process_pdf_file(pipeline, detector, pdf_path, output_dir, save, verbose):
            succeeded += 1

    click.echo(f"\nProcessed {succeeded}/{len(pdf_paths)} PDF(s) successfully")
    if succeeded < len(pdf_paths):
        ctx.exit(1)


@main.command()
@click.argument('pdf_path', type=click.Path(dir_okay=False, path_type=Path))
def check(pdf_path: Path):
    """Check that a file is a PDF the extractor can read."""
    converter = PdfConverter()
    error = converter.validation_error(str(pdf_path))
    if error is None and not converter.has_text_layer(str(pdf_path)):
        error = "O PDF não contém texto extraível (documento digitalizado)."
    if error:
        raise click.ClickException(error)
    click.echo(f"OK: {pdf_path}")


@main.group()
def records():
    """Manage locally stored records."""


@records.command('list')
@click.option('--json', 'as_json', is_flag=True, help='Print records as JSON')
@click.pass_context
def list_records(ctx: click.Context, as_json: bool):
    """List stored records."""
    store = _store(ctx)
    all_records = store.load_all()
    if as_json:
        click.echo(json.dumps([r.to_json_dict() for r in all_records], indent=2, ensure_ascii=False))
        return
    for record in all_records:
        click.echo(_short(record))
    click.echo(f"{len(all_records)}/{store.record_limit} record(s)")


@records.command('delete')
@click.argument('record_ids', nargs=-1, required=True)
@click.pass_context
def delete_records(ctx: click.Context, record_ids: Tuple[str, ...]):
    """Delete records by id."""
    removed = _store(ctx).delete_many(record_ids)
    click.echo(f"Deleted {removed} record(s)")
    if removed < len(set(record_ids)):
        click.echo("Some ids were not found", err=True)


@main.command()
@click.pass_context
def duplicates(ctx: click.Context):
    """List pairs of stored records that look like the same article."""
    all_records = _store(ctx).load_all()
    detector = DuplicateDetector()

    pairs: List[Tuple[ArticleRecord, ArticleRecord, float]] = []
    for index, record in enumerate(all_records):
        for other, score in detector.score_duplicates(record, all_records[index + 1:]):
            pairs.append((record, other, score))

    if not pairs:
        click.echo("No likely duplicates found")
        return
    for first, second, score in pairs:
        click.echo(f"{score:.0%}")
        click.echo(f"  {_short(first)}")
        click.echo(f"  {_short(second)}")


if __name__ == '__main__':
    main()
