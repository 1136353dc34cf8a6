"""
ORF scanning - splits a sequence into open reading frames ending in stop codons.

The sequence is read in the three forward frames. Every stop codon closes the
ORF that started right after the previous stop codon of the same frame, so the
ORFs of a frame tile it from the frame offset up to its last stop codon.
"""

import logging
from typing import Dict, List, Optional, FrozenSet
from dataclasses import dataclass, field

from .config import PredictorConfig
from .utils import SequenceStore, get_stop_codons

logger = logging.getLogger(__name__)

NUM_FRAMES = 3
CODON_LENGTH = 3


@dataclass
class ORF:
    """Class to store information about an Open Reading Frame"""
    start: int                      # 1-based position in sequence
    end: int                        # 1-based position, last base of the stop codon
    frame: int                      # 0, 1, or 2
    is_ground_truth: bool = False   # end matches a CDS end from the gene bank
    score: Optional[float] = None   # log(P(x)/Q(x)), set by the scorer

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def body_length(self) -> int:
        """Number of bases before the stop codon"""
        return self.length - CODON_LENGTH

    @property
    def is_predicted(self) -> bool:
        """Whether the Markov model calls this ORF coding"""
        return self.score is not None and self.score > 0


@dataclass
class ScanResult:
    """ORFs found by a scan, in emission order and grouped by length, and the training subsets"""
    orfs: List[ORF] = field(default_factory=list)
    orfs_by_length: Dict[int, List[ORF]] = field(default_factory=dict)
    trusted_training: List[ORF] = field(default_factory=list)
    background_training: List[ORF] = field(default_factory=list)

    def add(self, orf: ORF) -> None:
        self.orfs.append(orf)
        self.orfs_by_length.setdefault(orf.length, []).append(orf)

    def __iter__(self):
        return iter(self.orfs)

    def __len__(self) -> int:
        return len(self.orfs)


class ORFScanner:
    """
    Class for scanning a sequence for stop-codon bounded ORFs.
    """

    def __init__(self, config: Optional[PredictorConfig] = None,
                 annotation_ends: Optional[FrozenSet[int]] = None):
        """
        Initialize the scanner.

        Args:
            config: Thresholds and genetic code
            annotation_ends: 1-based CDS end coordinates used as ground truth
        """
        self.config = config or PredictorConfig()
        self.annotation_ends = annotation_ends or frozenset()
        self.stop_codons = get_stop_codons(self.config.genetic_code)

    def is_stop_codon(self, codon: str) -> bool:
        return codon in self.stop_codons

    def scan(self, store: SequenceStore) -> ScanResult:
        """
        Find all ORFs in the three forward frames of a sequence.

        A shared index advances one codon at a time and each frame tests the
        codon at its own offset, so ORFs are emitted in order of their stop
        codon position, frame 0 before frame 1 before frame 2 at each step.

        Args:
            store: Sequence to scan

        Returns:
            ScanResult with all ORFs and the training subsets
        """
        result = ScanResult()
        seq_length = len(store)
        frame_starts = list(range(NUM_FRAMES))   # 0-based start of the open ORF per frame

        for i in range(0, seq_length, CODON_LENGTH):
            for frame in range(NUM_FRAMES):
                codon_start = i + frame
                codon_end = codon_start + CODON_LENGTH
                if codon_end > seq_length:
                    continue
                if not self.is_stop_codon(store.codon(codon_start)):
                    continue

                orf = ORF(
                    start=frame_starts[frame] + 1,
                    end=codon_end,
                    frame=frame,
                    is_ground_truth=codon_end in self.annotation_ends
                )
                frame_starts[frame] = codon_end
                result.add(orf)
                self._route(orf, result)

        logger.info("Found %d ORFs (%d distinct lengths)", len(result), len(result.orfs_by_length))
        logger.info("ORFs for trusted model training: %d, background model training: %d",
                    len(result.trusted_training), len(result.background_training))
        return result

    def _route(self, orf: ORF, result: ScanResult) -> None:
        """Add an ORF to the training set its length selects, if any"""
        if self.config.is_trusted_length(orf.length):
            result.trusted_training.append(orf)
        elif self.config.is_background_length(orf.length):
            result.background_training.append(orf)
        else:
            logger.debug("ORF %d-%d (length %d) is used for scoring only",
                         orf.start, orf.end, orf.length)
