"""
Tests for Markov model training, normalization and ORF scoring.

Expected values are worked out by hand from the training sequences so each
test documents which counts and probabilities it relies on.
"""

import math
import random

import numpy as np
import pytest

from cdspredict.config import PredictorConfig
from cdspredict.markov import (
    MarkovModel, log_odds_score, score_orf, score_orfs, train_models, orf_body
)
from cdspredict.orfs import ORF, ORFScanner
from cdspredict.utils import SequenceStore, ModelStateError

A, C, G, T = range(4)


def make_store(sequence: str) -> SequenceStore:
    store, _ = SequenceStore.from_string(sequence)
    return store


def trained(*sequences, name="model", pseudocount=0.0) -> MarkovModel:
    model = MarkovModel(name, pseudocount)
    for codes in sequences:
        model.add_sequence(np.array(codes, dtype=np.uint8))
    model.normalize()
    return model


def increments(model: MarkovModel):
    return [int(counts.sum()) for counts in model.counts]


class TestTrainingCounts:
    """Sliding windows of width 1-4 over the ORF body, stop codon excluded"""

    def test_length_9_orf(self):
        """Body ACGTAC has 6 positions: 6, 5, 4 and 3 windows of width 1-4"""
        store = make_store("ACGTACTAA")
        orf = ORF(start=1, end=9, frame=0)
        model = MarkovModel()
        model.add_orf(orf, store)

        assert orf_body(orf, store).tolist() == [A, C, G, T, A, C]
        assert increments(model) == [6, 5, 4, 3]
        assert model.counts[0].tolist() == [2, 2, 1, 1]
        assert model.counts[1][A, C] == 2
        assert model.counts[1][T, A] == 1
        assert model.counts[2][G, T, A] == 1
        assert model.counts[3][A, C, G, T] == 1
        assert model.counts[3][C, G, T, A] == 1
        assert model.counts[3][G, T, A, C] == 1

    def test_length_6_orf_has_no_order_4_context(self):
        store = make_store("ACGTAA")
        model = MarkovModel()
        model.add_orf(ORF(start=1, end=6, frame=0), store)
        assert increments(model) == [3, 2, 1, 0]
        assert model.counts[2][A, C, G] == 1

    def test_stop_codon_only_orf_adds_nothing(self):
        model = MarkovModel()
        model.add_orf(ORF(start=1, end=3, frame=0), make_store("TAA"))
        assert increments(model) == [0, 0, 0, 0]
        assert model.is_empty

    def test_orf_in_later_frame(self):
        """Body is taken from the ORF coordinates, not the sequence start"""
        store = make_store("GGACGTAAC")
        model = MarkovModel()
        model.add_orf(ORF(start=3, end=8, frame=2), store)
        assert orf_body(ORF(start=3, end=8, frame=2), store).tolist() == [A, C, G]
        assert increments(model) == [3, 2, 1, 0]

    def test_merge_adds_counts(self):
        first = MarkovModel("trusted")
        first.add_sequence(np.array([A, C, G, T], dtype=np.uint8))
        second = MarkovModel("trusted")
        second.add_sequence(np.array([A, C, G], dtype=np.uint8))
        merged = first.merge(second)
        assert increments(merged) == [7, 5, 3, 1]
        assert merged.counts[2][A, C, G] == 2
        assert merged.num_sequences == 2
        assert increments(first) == [4, 3, 2, 1]


class TestNormalization:

    def assert_conditional(self, model: MarkovModel):
        for table, seen in zip(model.log_probs, model.observed):
            sums = np.asarray(np.exp(table).sum(axis=-1))
            assert np.allclose(sums[seen], 1.0, rtol=0, atol=1e-9)
            assert np.all(np.isnan(table[~seen]))

    def test_probabilities_sum_to_one(self):
        rng = random.Random(5)
        sequences = [[rng.randrange(4) for _ in range(rng.randrange(1, 60))] for _ in range(40)]
        model = trained(*sequences)
        self.assert_conditional(model)

    def test_values(self):
        """Training on ACGTAC"""
        model = trained([A, C, G, T, A, C])
        assert np.allclose(np.exp(model.log_probs[0]), [2 / 6, 2 / 6, 1 / 6, 1 / 6])
        # A is always followed by C
        assert model.log_probs[1][A, C] == 0.0
        assert np.isneginf(model.log_probs[1][A, G])
        # AA never occurs as a context
        assert not model.observed[2][A, A]
        assert np.all(np.isnan(model.log_probs[2][A, A]))
        assert model.observed[3][A, C, G]
        self.assert_conditional(model)

    def test_untrained_model_is_all_unobserved(self):
        model = trained()
        assert model.is_empty
        for table, seen in zip(model.log_probs, model.observed):
            assert not np.any(seen)
            assert np.all(np.isnan(table))

    def test_pseudocount(self):
        """With a pseudocount every context is observed; unseen ones are uniform"""
        model = trained([A, C], pseudocount=1.0)
        assert np.allclose(np.exp(model.log_probs[0]), [2 / 6, 2 / 6, 1 / 6, 1 / 6])
        assert np.allclose(np.exp(model.log_probs[1][A]), [1 / 5, 2 / 5, 1 / 5, 1 / 5])
        assert np.allclose(np.exp(model.log_probs[3][T, T, T]), 0.25)
        assert all(np.all(seen) for seen in model.observed)
        self.assert_conditional(model)

    def test_stage_order_is_enforced(self):
        model = MarkovModel()
        with pytest.raises(ModelStateError):
            model.position_log_probs(np.array([A], dtype=np.uint8))
        model.normalize()
        with pytest.raises(ModelStateError):
            model.normalize()
        with pytest.raises(ModelStateError):
            model.add_sequence(np.array([A], dtype=np.uint8))
        with pytest.raises(ModelStateError):
            model.merge(MarkovModel())


class TestScoring:
    """
    Trusted model trained on ACAC, background on AACC.

    P: order 1 A=C=1/2; A->C and C->A with probability 1; AC->A, CA->C.
    Q: order 1 A=C=1/2; A->A, A->C 1/2 each; C->C; AA->C, AC->C; AAC->C.
    """

    @pytest.fixture
    def trusted(self):
        return trained([A, C, A, C], name="trusted")

    @pytest.fixture
    def background(self):
        return trained([A, A, C, C], name="background")

    def score(self, codes, trusted, background):
        return log_odds_score(np.array(codes, dtype=np.uint8), trusted, background)

    def test_log_ratio(self, trusted, background):
        # (log 1/2 + log 1) - (log 1/2 + log 1/2)
        assert self.score([A, C], trusted, background) == pytest.approx(math.log(2))

    def test_equal_models_score_zero(self, trusted, background):
        score = self.score([A], trusted, background)
        assert score == 0.0
        assert not ORF(start=1, end=4, frame=0, score=score).is_predicted

    def test_zero_probability_under_background(self, trusted, background):
        """AC is always followed by C in Q, so ACA is impossible under Q"""
        assert self.score([A, C, A], trusted, background) == math.inf

    def test_empty_body(self, trusted, background):
        assert self.score([], trusted, background) == 0.0

    def test_impossible_under_both(self, trusted, background):
        """G never occurs in either model; the remaining positions are unobserved"""
        assert self.score([G, A], trusted, background) == 0.0

    def test_unobserved_context_is_excluded(self):
        """
        P trained on ACG; Q on ACGACC and ACGT.

        At position 3 of ACGA the context ACG is unobserved in P, so Q's
        log(1/2) for that position is left out as well.
        """
        trusted = trained([A, C, G])
        background = trained([A, C, G, A, C, C], [A, C, G, T])
        assert not trusted.observed[3][A, C, G]
        assert background.log_probs[3][A, C, G, A] == pytest.approx(math.log(0.5))

        expected = math.log(1 / 3) - (math.log(0.3) + math.log(2 / 3))
        assert self.score([A, C, G, A], trusted, background) == pytest.approx(expected)

    def test_order_selection_matches_training(self):
        """A model scored on its only training sequence gives log 1 after position 0"""
        model = trained([G, A, T, T, A, C, A])
        terms = model.position_log_probs(np.array([G, A, T, T, A, C, A], dtype=np.uint8))
        assert terms[0] == pytest.approx(math.log(1 / 7))
        assert np.allclose(terms[1:3], 0.0)
        # order 4 contexts GAT, ATT, TTA, TAC each occur once
        assert np.allclose(terms[3:], 0.0)


class TestScoreOrfs:

    SEQUENCE = ("ATG" + "GCTGAC" * 40 + "TAA"
                + "CCTAGTTTGACTAAGTAGATGA"
                + "ATG" + "AAACGC" * 30 + "TGA")

    def run(self):
        config = PredictorConfig(trusted_threshold=150, background_threshold=20)
        store = make_store(self.SEQUENCE)
        scan = ORFScanner(config).scan(store)
        trusted, background = train_models(scan, store, config)
        score_orfs(scan, store, trusted, background)
        return scan, store, trusted, background

    def test_every_orf_is_scored(self):
        scan, store, trusted, background = self.run()
        assert len(scan.trusted_training) >= 2
        assert len(scan.background_training) > 0
        for orf in scan:
            assert orf.score is not None
            assert orf.score == score_orf(orf, store, trusted, background)

    def test_scoring_is_repeatable(self):
        first, _, p1, q1 = self.run()
        second, _, p2, q2 = self.run()
        assert [orf.score for orf in first] == [orf.score for orf in second]
        for a, b in zip(p1.log_probs + q1.log_probs, p2.log_probs + q2.log_probs):
            assert np.array_equal(a, b, equal_nan=True)

    def test_empty_training_set_warns(self, caplog):
        config = PredictorConfig()
        store = make_store("ATGAAATAATTTTGA")
        scan = ORFScanner(config).scan(store)
        with caplog.at_level("WARNING", logger="cdspredict"):
            trusted, background = train_models(scan, store, config)
        assert "No training data for trusted model" in caplog.text
        assert trusted.is_normalized and background.is_normalized
        score_orfs(scan, store, trusted, background)
        assert all(orf.score == 0.0 for orf in scan)
