"""
Predict module - finds ORFs in a DNA sequence and scores them as coding or not.

The pipeline runs in strict stages: load the sequence and gene bank, scan for
ORFs, train and normalize the trusted/background Markov models, then score
every ORF. Results are compared against the gene bank CDS ends.
"""

import os
import sys
import logging
from typing import List, Optional, FrozenSet, Tuple

import click
import pandas as pd

from .config import PredictorConfig
from .markov import MarkovModel, train_models, score_orfs
from .orfs import ORFScanner, ScanResult
from .report import RunSummary, length_histogram, summarize, format_report, plot_histogram
from .utils import (
    SequenceStore, LoadWarning, CDSPredictError, ConfigurationError, OutputError,
    read_sequence, read_annotation_ends, write_fasta, ensure_directory,
    setup_logger
)

logger = logging.getLogger(__name__)


class CDSPredictor:
    """
    Class for predicting protein coding ORFs in a DNA sequence.
    """

    def __init__(self, sequence_file: str,
                 annotation_file: Optional[str] = None,
                 config: Optional[PredictorConfig] = None):
        """
        Initialize the predictor.

        Args:
            sequence_file: Path to the FASTA file with the DNA sequence
            annotation_file: Optional GenBank file; CDS ends are used for comparison only
            config: Thresholds, pseudocount and genetic code
        """
        if not sequence_file:
            raise ConfigurationError("FASTA file name cannot be null or empty string.")

        self.sequence_file = sequence_file
        self.annotation_file = annotation_file
        self.config = config or PredictorConfig()

        self.store: Optional[SequenceStore] = None
        self.load_warnings: List[LoadWarning] = []
        self.annotation_ends: FrozenSet[int] = frozenset()
        self.scan_result: Optional[ScanResult] = None
        self.trusted: Optional[MarkovModel] = None
        self.background: Optional[MarkovModel] = None

    @property
    def has_annotations(self) -> bool:
        return bool(self.annotation_file)

    def load(self) -> None:
        """Read the sequence and, if given, the gene bank stop positions"""
        store, warnings = read_sequence(self.sequence_file)
        annotation_ends = frozenset()
        if self.annotation_file:
            annotation_ends = read_annotation_ends(self.annotation_file)

        self.store = store
        self.load_warnings = warnings
        self.annotation_ends = annotation_ends

    def scan_orfs(self) -> ScanResult:
        """Scan the three forward frames for ORFs"""
        scanner = ORFScanner(self.config, self.annotation_ends)
        self.scan_result = scanner.scan(self.store)
        return self.scan_result

    def train_models(self) -> Tuple[MarkovModel, MarkovModel]:
        """Train the trusted (P) and background (Q) models on the routed ORFs"""
        logger.info("Threshold length for trusted model training data   : > %d",
                    self.config.trusted_threshold)
        logger.info("Threshold length for background model training data: < %d",
                    self.config.background_threshold)
        self.trusted, self.background = train_models(self.scan_result, self.store, self.config)
        return self.trusted, self.background

    def score_orfs(self) -> None:
        """Score every ORF by log(P(x)/Q(x))"""
        score_orfs(self.scan_result, self.store, self.trusted, self.background)

    def run_pipeline(self) -> ScanResult:
        """
        Run load, scan, training and scoring in order.

        Returns:
            The scan result with every ORF scored
        """
        logger.info("Loading input files...")
        self.load()

        logger.info("Scanning for ORFs...")
        self.scan_orfs()

        logger.info("Computing training data (P/Q) for Markov model...")
        self.train_models()

        logger.info("Scoring [log(P(x)/Q(x))] each ORF based on training data...")
        self.score_orfs()

        return self.scan_result

    def histogram(self) -> pd.DataFrame:
        return length_histogram(self.scan_result.orfs_by_length)

    def summary(self) -> RunSummary:
        return summarize(self.scan_result.orfs_by_length, len(self.annotation_ends))

    def write_output_files(self, output_dir: str, base_name: Optional[str] = None) -> Tuple[str, str]:
        """
        Write scored ORFs to GFF3 and predicted coding ORFs to FASTA.

        Args:
            output_dir: Directory to write output files
            base_name: Base name for output files, defaults to the sequence file name

        Returns:
            Tuple of (gff3_file, cds_file) paths
        """
        seq_id = os.path.splitext(os.path.basename(self.sequence_file))[0]
        base_name = base_name or seq_id
        gff3_file = os.path.join(output_dir, f"{base_name}.cdspredict.gff3")
        cds_file = os.path.join(output_dir, f"{base_name}.cdspredict.cds")

        predicted = {}
        descriptions = {}
        try:
            ensure_directory(output_dir)
            with open(gff3_file, 'w') as gff_out:
                gff_out.write("##gff-version 3\n")
                gff_out.write(f"##sequence-region {seq_id} 1 {len(self.store)}\n")

                for counter, orf in enumerate(self.scan_result, start=1):
                    orf_id = f"{seq_id}.orf{counter}"
                    gff_out.write(
                        f"{seq_id}\tcdspredict\tCDS\t{orf.start}\t{orf.end}\t{orf.score:.5f}\t"
                        f"+\t0\tID={orf_id};orf_frame={orf.frame};orf_length={orf.length};"
                        f"gbk_match={str(orf.is_ground_truth).lower()};"
                        f"mm_predicted={str(orf.is_predicted).lower()}\n"
                    )
                    if orf.is_predicted:
                        predicted[orf_id] = self.store.bases[orf.start - 1:orf.end]
                        descriptions[orf_id] = (f"{seq_id}:{orf.start}-{orf.end}(+) "
                                                f"frame:{orf.frame} score:{orf.score:.3f}")

            write_fasta(predicted, cds_file, descriptions)
        except OSError as e:
            raise OutputError(
                f"Could not write output files to '{os.path.abspath(output_dir)}': {e}") from e
        logger.info("Wrote %d scored ORFs to %s and %d predicted CDS to %s",
                    len(self.scan_result), gff3_file, len(predicted), cds_file)
        return gff3_file, cds_file


@click.command()
@click.argument('input_files', nargs=-1, metavar='SEQUENCE_FILE [ANNOTATION_FILE]')
@click.option('--trusted_length', default=1400, show_default=True,
              help='ORFs longer than this train the trusted model')
@click.option('--background_length', default=50, show_default=True,
              help='ORFs shorter than this train the background model')
@click.option('--pseudocount', default=0.0, show_default=True,
              help='Pseudocount added to every Markov count')
@click.option('--genetic_code', '-G', default='universal', show_default=True,
              help='Genetic code used for stop codons')
@click.option('--output_dir', '-O', help='Write GFF3, CDS and histogram plot here')
@click.option('--verbose', '-v', is_flag=True, help='Log debug messages')
@click.pass_context
def main(ctx, input_files, trusted_length, background_length,
         pseudocount, genetic_code, output_dir, verbose):
    """
    Predict protein coding ORFs in SEQUENCE_FILE (FASTA).

    ORFs are scored with a 4th order Markov model trained on long ORFs
    against one trained on short ORFs. If ANNOTATION_FILE (GenBank) is given,
    predictions are compared to its CDS stop positions.
    """
    if len(input_files) not in (1, 2):
        click.echo(ctx.get_help())
        return
    sequence_file = input_files[0]
    annotation_file = input_files[1] if len(input_files) == 2 else None

    setup_logger(logging.DEBUG if verbose else logging.INFO)

    try:
        config = PredictorConfig(
            trusted_threshold=trusted_length,
            background_threshold=background_length,
            pseudocount=pseudocount,
            genetic_code=genetic_code
        )
        click.echo("Predicting protein coding sequence...")
        predictor = CDSPredictor(sequence_file, annotation_file, config)
        predictor.run_pipeline()

        if predictor.load_warnings:
            click.echo(f"Replaced {len(predictor.load_warnings)} unknown bases with 'T'")
        if not predictor.has_annotations:
            click.echo("No gene bank file given; #GBK columns are all zero")

        histogram = predictor.histogram()
        click.echo()
        click.echo(format_report(histogram, predictor.summary()), nl=False)

        if output_dir:
            gff3_file, cds_file = predictor.write_output_files(output_dir)
            plot_file = plot_histogram(
                histogram, os.path.join(output_dir, "orf_length_histogram.png"))

            click.echo("\nOutput files:")
            click.echo(f"  GFF3 file: {gff3_file}")
            click.echo(f"  CDS file: {cds_file}")
            click.echo(f"  Histogram plot: {plot_file}")
    except CDSPredictError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
