#!/usr/bin/env python
from __future__ import annotations

import argparse
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="TCGA cohort survival by gene expression strata (Kaplan-Meier + log-rank)")
    p.add_argument("--out", type=Path, default=Path("results"), help="Output directory")
    p.add_argument(
        "--clinical",
        type=Path,
        required=True,
        help="Clinical TSV/CSV with submitter_id, vital_status, days_to_last_follow_up, days_to_death",
    )
    p.add_argument("--expression", type=Path, default=None, help="Expression matrix (rows=gene ids, cols=sample barcodes)")
    p.add_argument("--gene", type=str, default=None, help="Gene id or symbol to stratify on")
    p.add_argument("--gene-names", type=Path, default=None, help="Two-column gene id -> symbol table")
    p.add_argument("--groups", type=Path, default=None, help="Predefined groups table (case id, label)")
    p.add_argument("--group-column", type=str, default=None, help="Label column in --groups (default: second column)")
    p.add_argument(
        "--split",
        type=str,
        default=None,
        choices=["median", "tertile"],
        help="Expression split rule (default: median; not allowed with --groups)",
    )
    p.add_argument(
        "--screen-genes",
        type=str,
        nargs="+",
        default=None,
        help="Also run a median-split log-rank screen over these genes",
    )
    p.add_argument("--all-samples", action="store_true", help="Keep non-primary-tumor samples")
    p.add_argument(
        "--strict",
        action="store_true",
        help="Fail on cases without usable follow-up instead of skipping them",
    )
    p.add_argument("--threads", type=int, default=1, help="Parallel workers for the gene screen")
    p.add_argument("--overwrite", action="store_true", help="Allow writing into a non-empty output directory")
    p.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console/file log level",
    )
    p.add_argument("--log-file", type=Path, default=None, help="Log file path (default: <out>/run.log)")
    p.add_argument("--no-progress", action="store_true", help="Disable tqdm progress bars")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    from tcga_survival.logging_utils import configure_logging

    configure_logging(out_dir=args.out, level=args.log_level, log_file=args.log_file)
    from tcga_survival.pipeline import run_pipeline

    run_pipeline(
        out_dir=args.out,
        clinical_path=args.clinical,
        expression_path=args.expression,
        gene=args.gene,
        gene_names_path=args.gene_names,
        groups_path=args.groups,
        group_column=args.group_column,
        split=args.split,
        screen_genes=args.screen_genes,
        primary_tumor_only=not args.all_samples,
        skip_incomplete=not args.strict,
        threads=args.threads,
        overwrite=args.overwrite,
        show_progress=not args.no_progress,
    )


if __name__ == "__main__":
    main()
