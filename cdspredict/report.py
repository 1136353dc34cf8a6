"""
Result aggregation - ORF length histogram and prediction summary.
"""

from dataclasses import dataclass
from typing import Dict, List

import pandas as pd

from .orfs import ORF
from .utils import OutputError

HISTOGRAM_COLUMNS = ["length", "count", "gbk", "mm", "mm_gbk", "avg_score"]
RULE = " " + "-" * 64


@dataclass
class RunSummary:
    """Totals of a run, comparing gene bank matches (#GBK) to Markov model predictions (#MM)"""
    total_annotations: int
    total_orfs: int
    gbk_matches: int
    gbk_non_matches: int
    mm_predicted: int
    true_positives: int
    false_positives: int
    false_negatives: int


def length_histogram(orfs_by_length: Dict[int, List[ORF]]) -> pd.DataFrame:
    """
    Build a table with one row per ORF length, ascending.

    Columns:
        count: ORFs of that length
        gbk: ORFs whose end matches a gene bank CDS end
        mm: ORFs with score > 0
        mm_gbk: ORFs that are both
        avg_score: mean score
    """
    rows = []
    for length, orfs in orfs_by_length.items():
        gbk = sum(1 for orf in orfs if orf.is_ground_truth)
        mm = sum(1 for orf in orfs if orf.is_predicted)
        both = sum(1 for orf in orfs if orf.is_ground_truth and orf.is_predicted)
        scores = [orf.score for orf in orfs if orf.score is not None]
        avg_score = sum(scores) / len(scores) if scores else float('nan')
        rows.append((length, len(orfs), gbk, mm, both, avg_score))

    histogram = pd.DataFrame(rows, columns=HISTOGRAM_COLUMNS)
    return histogram.sort_values("length").reset_index(drop=True)


def summarize(orfs_by_length: Dict[int, List[ORF]], total_annotations: int = 0) -> RunSummary:
    """Compute run totals; a false negative is a gene bank ORF scored <= 0"""
    total = gbk = mm = both = false_neg = 0
    for orfs in orfs_by_length.values():
        for orf in orfs:
            total += 1
            if orf.is_ground_truth:
                gbk += 1
            if orf.is_predicted:
                mm += 1
                if orf.is_ground_truth:
                    both += 1
            elif orf.is_ground_truth:
                false_neg += 1

    return RunSummary(
        total_annotations=total_annotations,
        total_orfs=total,
        gbk_matches=gbk,
        gbk_non_matches=total - gbk,
        mm_predicted=mm,
        true_positives=both,
        false_positives=mm - both,
        false_negatives=false_neg,
    )


def format_report(histogram: pd.DataFrame, summary: RunSummary) -> str:
    """Render the histogram and summary as a fixed-width text report"""
    lines = [
        " Printing ORF Histogram...",
        RULE,
        " NOTE: ORF Length is no. of nucleotides and includes stop codons",
        RULE,
        " Length Count  #GBK   #MM #MMGBK Avg.  ",
        RULE,
    ]
    for length, count, gbk, mm, mm_gbk, avg_score in histogram[HISTOGRAM_COLUMNS].itertuples(
            index=False, name=None):
        if length <= 9999 and max(count, gbk, mm, mm_gbk) <= 99999:
            line = " {0:>4} : {1:>5} {2:>5} {3:>5} {4:>5}  {5:.5f}"
        else:
            line = "{0} : {1}  {2}  {3}  {4}  {5:.5f}"
        lines.append(line.format(int(length), int(count), int(gbk), int(mm), int(mm_gbk), avg_score))

    lines.extend([
        RULE,
        " #GBK Approach Summary:",
        f"    Total Genes specified in the GeneBank: {summary.total_annotations}",
        f"    Total ORFs found: {summary.total_orfs}, Genes predicted in #GBK: "
        f"{summary.gbk_matches}, Difference: {summary.gbk_non_matches}",
        "",
        " #MM Approach Summary:",
        f"    True Positives  ( #MM ^  #GBK): {summary.true_positives}",
        f"    False Positives ( #MM ^ !#GBK): {summary.false_positives}",
        f"    False Negatives (!#MM ^  #GBK): {summary.false_negatives}",
        RULE,
    ])
    return "\n".join(lines) + "\n"


def plot_histogram(histogram: pd.DataFrame, output_file: str) -> str:
    """Save a bar chart of ORF counts per length with #GBK and #MM overlaid"""
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(10, 5))
    ax.bar(histogram["length"], histogram["count"], width=3, color="lightgray", label="All ORFs")
    ax.bar(histogram["length"], histogram["mm"], width=3, alpha=0.6, label="#MM (score > 0)")
    ax.bar(histogram["length"], histogram["gbk"], width=3, alpha=0.6, label="#GBK")
    ax.set_xlabel("ORF length (nt, including stop codon)")
    ax.set_ylabel("ORFs")
    ax.set_yscale("log")
    ax.legend()
    fig.tight_layout()
    try:
        fig.savefig(output_file, dpi=150)
    except OSError as e:
        raise OutputError(f"Could not write histogram plot '{output_file}': {e}") from e
    finally:
        plt.close(fig)
    return output_file
