"""
Markov chain models for scoring coding potential of ORFs.

Two models are trained on the same sequence: a trusted model P from long ORFs,
which are mostly real genes, and a background model Q from short ORFs. An ORF
is scored by the log-likelihood ratio log P(x) - log Q(x) of its body, the
bases before the stop codon.

Each model keeps one table per order. The order-k table has k axes of size 4;
the first k-1 axes are the preceding bases (oldest first) and the last axis is
the base being predicted.
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .config import PredictorConfig
from .orfs import ORF, ScanResult
from .utils import SequenceStore, ModelStateError, BASES

logger = logging.getLogger(__name__)

MAX_ORDER = 4
ALPHABET_SIZE = len(BASES)


def orf_body(orf: ORF, store: SequenceStore) -> np.ndarray:
    """Base indices of an ORF without its stop codon"""
    return store.codes[orf.start - 1:orf.end - 3]


class MarkovModel:
    """
    First to fourth order Markov chain over the nucleotide alphabet.

    Counts are added with add_orf / add_sequence, then normalize() converts
    them to natural-log conditional probabilities. A context whose counts sum
    to zero is unobserved: its log probabilities are NaN and the scorer skips
    any position that needs it.
    """

    def __init__(self, name: str = "model", pseudocount: float = 0.0):
        self.name = name
        self.pseudocount = pseudocount
        # counts[k - 1] has shape (4,) * k
        self.counts = [
            np.zeros((ALPHABET_SIZE,) * order, dtype=np.int64)
            for order in range(1, MAX_ORDER + 1)
        ]
        self.log_probs: Optional[List[np.ndarray]] = None
        self.observed: Optional[List[np.ndarray]] = None
        self.num_sequences = 0

    def __repr__(self) -> str:
        state = "normalized" if self.is_normalized else "counting"
        return f"MarkovModel(name={self.name!r}, sequences={self.num_sequences}, {state})"

    @property
    def is_normalized(self) -> bool:
        return self.log_probs is not None

    @property
    def is_empty(self) -> bool:
        return self.num_sequences == 0 or int(self.counts[0].sum()) == 0

    def add_orf(self, orf: ORF, store: SequenceStore) -> None:
        """Add the body of an ORF to the training counts"""
        self.add_sequence(orf_body(orf, store))

    def add_sequence(self, codes: np.ndarray) -> None:
        """
        Add every window of width 1 to 4 in a sequence of base indices.

        A position with k preceding bases in the sequence contributes to the
        tables of order 1 through min(k + 1, 4).
        """
        if self.is_normalized:
            raise ModelStateError(f"Cannot add training data to normalized model '{self.name}'")

        self.num_sequences += 1
        seq_len = len(codes)
        for order in range(1, MAX_ORDER + 1):
            if seq_len < order:
                break
            # Column k of the windows is the base k positions into the window
            windows = tuple(codes[k:seq_len - order + 1 + k] for k in range(order))
            np.add.at(self.counts[order - 1], windows, 1)

    def merge(self, other: 'MarkovModel') -> 'MarkovModel':
        """Return a new model holding the summed counts of two unnormalized models"""
        if self.is_normalized or other.is_normalized:
            raise ModelStateError("Only unnormalized models can be merged")
        merged = MarkovModel(self.name, self.pseudocount)
        merged.counts = [a + b for a, b in zip(self.counts, other.counts)]
        merged.num_sequences = self.num_sequences + other.num_sequences
        return merged

    def normalize(self) -> None:
        """
        Convert counts to log conditional probabilities.

        For each context the counts of the 4 following bases are divided by
        their sum. Contexts with a zero sum are marked unobserved and left
        unconverted.
        """
        if self.is_normalized:
            raise ModelStateError(f"Model '{self.name}' is already normalized")

        pseudo = self.pseudocount
        log_probs = []
        observed = []
        for counts in self.counts:
            totals = counts.sum(axis=-1, keepdims=True) + ALPHABET_SIZE * pseudo
            seen = totals > 0
            with np.errstate(divide='ignore', invalid='ignore'):
                table = np.log((counts + pseudo) / totals)
            log_probs.append(np.where(seen, table, np.nan))
            observed.append(seen[..., 0])

        self.log_probs = log_probs
        self.observed = observed

        for order, seen in enumerate(observed, start=1):
            logger.debug("%s model order %d: %d of %d contexts observed",
                         self.name, order, int(np.count_nonzero(seen)), seen.size)

    def position_log_probs(self, body: np.ndarray) -> np.ndarray:
        """
        Log probability of each base of a sequence given its preceding bases.

        Position 0 uses the order-1 table, position 1 order 2, position 2
        order 3 and every later position order 4, matching the training
        windows. Unobserved contexts give NaN.
        """
        if not self.is_normalized:
            raise ModelStateError(f"Model '{self.name}' must be normalized before scoring")

        seq_len = len(body)
        terms = np.empty(seq_len, dtype=float)
        for position in range(min(seq_len, MAX_ORDER - 1)):
            terms[position] = self.log_probs[position][tuple(body[:position + 1])]
        if seq_len >= MAX_ORDER:
            windows = tuple(body[k:seq_len - MAX_ORDER + 1 + k] for k in range(MAX_ORDER))
            terms[MAX_ORDER - 1:] = self.log_probs[MAX_ORDER - 1][windows]
        return terms


def log_odds_score(body: np.ndarray, trusted: MarkovModel, background: MarkovModel) -> float:
    """
    Score a sequence of base indices by log P(x) - log Q(x).

    Positions whose context is unobserved in either model are left out of
    both sums. If both models give the sequence probability zero, the
    positions with an infinite term are left out as well.
    """
    if len(body) == 0:
        return 0.0

    log_p = trusted.position_log_probs(body)
    log_q = background.position_log_probs(body)

    usable = ~np.isnan(log_p) & ~np.isnan(log_q)
    p_score = log_p[usable].sum()
    q_score = log_q[usable].sum()

    if np.isneginf(p_score) and np.isneginf(q_score):
        finite = np.isfinite(log_p) & np.isfinite(log_q)
        p_score = log_p[finite].sum()
        q_score = log_q[finite].sum()

    return float(p_score - q_score)


def score_orf(orf: ORF, store: SequenceStore,
              trusted: MarkovModel, background: MarkovModel) -> float:
    """Compute the log-likelihood ratio score of one ORF"""
    return log_odds_score(orf_body(orf, store), trusted, background)


def score_orfs(scan: ScanResult, store: SequenceStore,
               trusted: MarkovModel, background: MarkovModel) -> None:
    """Set the score of every ORF found by a scan"""
    for orf in scan:
        orf.score = score_orf(orf, store, trusted, background)


def train_models(scan: ScanResult, store: SequenceStore,
                 config: Optional[PredictorConfig] = None) -> Tuple[MarkovModel, MarkovModel]:
    """
    Train and normalize the trusted and background models from a scan.

    Args:
        scan: Scan result with the routed training ORFs
        store: Sequence the ORFs refer to
        config: Thresholds and pseudocount

    Returns:
        Tuple of (trusted model P, background model Q)
    """
    config = config or PredictorConfig()
    trusted = MarkovModel("trusted", config.pseudocount)
    background = MarkovModel("background", config.pseudocount)

    for orf in scan.trusted_training:
        trusted.add_orf(orf, store)
    for orf in scan.background_training:
        background.add_orf(orf, store)

    for model, rule in ((trusted, f"> {config.trusted_threshold}"),
                        (background, f"< {config.background_threshold}")):
        if model.is_empty:
            logger.warning("No training data for %s model (ORF length %s); "
                           "its contexts are all unobserved", model.name, rule)

    trusted.normalize()
    background.normalize()
    return trusted, background
