"""
Utility functions for cdspredict: the nucleotide alphabet, sequence and
annotation loaders, exceptions and logging setup.
"""

import os
import re
import sys
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Tuple, FrozenSet, Optional

import numpy as np
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord
from Bio.Data import CodonTable

logger = logging.getLogger(__name__)

# Nucleotide alphabet, in table index order
BASES = "ACGT"
BASE_INDEX = {base: index for index, base in enumerate(BASES)}
FALLBACK_BASE = "T"

# Genetic code tables
GENETIC_CODES = {
    "universal": 1,
    "Euplotes": 10,
    "Tetrahymena": 6,
    "Candida": 12,
    "Acetabularia": 16,
}

CDS_END_PATTERN = re.compile(r"CDS\s*\d+\.\.(\d+)")


class CDSPredictError(Exception):
    """Base class for errors reported to the user"""


class ConfigurationError(CDSPredictError):
    """Invalid arguments or settings, detected before any processing"""


class LoadError(CDSPredictError):
    """An input file could not be found or read"""


class ModelStateError(CDSPredictError):
    """A Markov model was used out of stage order"""


class OutputError(CDSPredictError):
    """An output file or directory could not be written"""


@dataclass(frozen=True)
class LoadWarning:
    """A character outside the nucleotide alphabet that was read as T"""
    position: int        # 0-based position in the concatenated sequence
    character: str

    def __str__(self) -> str:
        return (f"Found unknown base '{self.character}' at position "
                f"'{self.position}'. Treating it as base '{FALLBACK_BASE}'.")


@dataclass(frozen=True)
class SequenceStore:
    """
    Immutable nucleotide sequence over {A, C, G, T}.

    Holds the bases both as a string (for codon lookups) and as an array
    of base indices A=0, C=1, G=2, T=3 (for the Markov tables).
    """
    bases: str
    codes: np.ndarray = field(repr=False, compare=False)

    @classmethod
    def from_string(cls, sequence: str) -> Tuple['SequenceStore', List[LoadWarning]]:
        """
        Build a store from raw sequence text.

        Every character outside {A, C, G, T} is replaced by T and reported
        as a LoadWarning. The input is not upper-cased first.
        """
        warnings = []
        chars = list(sequence)
        for position, char in enumerate(chars):
            if char not in BASE_INDEX:
                warnings.append(LoadWarning(position, char))
                chars[position] = FALLBACK_BASE

        bases = "".join(chars)
        codes = np.frombuffer(bases.encode("ascii"), dtype=np.uint8).copy()
        lookup = np.zeros(256, dtype=np.uint8)
        for base, index in BASE_INDEX.items():
            lookup[ord(base)] = index
        codes = lookup[codes]
        codes.setflags(write=False)

        return cls(bases=bases, codes=codes), warnings

    def __len__(self) -> int:
        return len(self.bases)

    def codon(self, index: int) -> str:
        """Return the 3 bases starting at 0-based index"""
        return self.bases[index:index + 3]


def get_stop_codons(genetic_code: str = "universal") -> FrozenSet[str]:
    """Return the stop codons of a named genetic code"""
    if genetic_code not in GENETIC_CODES:
        valid_codes = ", ".join(GENETIC_CODES.keys())
        raise ConfigurationError(
            f"Invalid genetic code '{genetic_code}'. Valid options are: {valid_codes}")
    table = CodonTable.unambiguous_dna_by_id[GENETIC_CODES[genetic_code]]
    return frozenset(table.stop_codons)


def _check_input_file(path: Optional[str], description: str) -> str:
    if not path:
        raise ConfigurationError(f"{description} file name cannot be null or empty string.")
    if not os.path.isfile(path):
        raise LoadError(
            f"{description} file '{os.path.abspath(path)}' not found. "
            f"Must specify a valid file name.")
    return path


def read_sequence(fasta_file: str) -> Tuple[SequenceStore, List[LoadWarning]]:
    """
    Read a FASTA file into a single SequenceStore.

    Header lines (starting with '>') are skipped and all other lines are
    concatenated in file order, so a multi-record file yields one sequence.

    Args:
        fasta_file: Path to the FASTA file

    Returns:
        Tuple of (sequence store, list of coercion warnings)
    """
    _check_input_file(fasta_file, "FASTA")
    logger.info("Reading FASTA file %s", os.path.basename(fasta_file))

    chunks = []
    try:
        with open(fasta_file, 'r', encoding='utf-8') as f:
            for line in f:
                if line.startswith('>'):
                    logger.debug("Ignoring comments: '%s'", line.rstrip())
                    continue
                chunks.append(line.strip())
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Could not read FASTA file '{os.path.abspath(fasta_file)}': {e}") from e

    store, warnings = SequenceStore.from_string("".join(chunks))
    for warning in warnings:
        logger.warning(str(warning))

    logger.info("Successfully read sequence of length %d", len(store))
    return store, warnings


def read_annotation_ends(gbk_file: str) -> FrozenSet[int]:
    """
    Read the end coordinates of CDS features from a GenBank file.

    Only forward-strand features written as 'CDS <start>..<end>' match;
    every other line is ignored.
    """
    _check_input_file(gbk_file, "Gene bank")
    logger.info("Reading gene bank file %s", os.path.basename(gbk_file))

    ends = set()
    try:
        with open(gbk_file, 'r', encoding='utf-8') as f:
            for line in f:
                match = CDS_END_PATTERN.search(line.strip())
                if match:
                    ends.add(int(match.group(1)))
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Could not read gene bank file '{os.path.abspath(gbk_file)}': {e}") from e

    logger.info("Read %d CDS stop positions from gene bank", len(ends))
    return frozenset(ends)


def write_fasta(sequences: Dict[str, str], output_file: str,
                descriptions: Optional[Dict[str, str]] = None) -> None:
    """Write sequences to a FASTA file"""
    descriptions = descriptions or {}
    records = [
        SeqRecord(Seq(seq), id=header, description=descriptions.get(header, ""))
        for header, seq in sequences.items()
    ]
    with open(output_file, 'w') as f:
        SeqIO.write(records, f, 'fasta')


def ensure_directory(directory: str) -> str:
    """Ensure a directory exists and return its path"""
    if not os.path.exists(directory):
        os.makedirs(directory)
    return directory


def setup_logger(level: int = logging.INFO, log_format: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger to write to stdout.

    Args:
        level: Logging level
        log_format: Log format, defaults to time - name - level - message

    Returns:
        The configured 'cdspredict' logger
    """
    package_logger = logging.getLogger("cdspredict")
    package_logger.setLevel(level)

    if log_format is None:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(log_format))
    package_logger.addHandler(console_handler)

    return package_logger
