#!/usr/bin/env python3
"""
Simple example script that demonstrates how to use the cdspredict API.
"""

import os
import sys
import random
import tempfile
from pathlib import Path

# Add the parent directory to the path so we can import cdspredict
sys.path.append(str(Path(__file__).parent.parent))

from cdspredict.config import PredictorConfig
from cdspredict.markov import train_models, score_orfs
from cdspredict.orfs import ORFScanner
from cdspredict.predict import CDSPredictor
from cdspredict.report import format_report
from cdspredict.utils import read_sequence, write_fasta


def main():
    """Run a simple cdspredict example"""
    with tempfile.TemporaryDirectory() as temp_dir:
        # Two genes separated by random sequence
        rng = random.Random(42)
        spacer = "".join(rng.choice("ACGT") for _ in range(600))
        gene_1 = "ATG" + "GCTGACAAA" * 40 + "TAA"
        gene_2 = "ATG" + "CGCAAAGAA" * 35 + "TGA"
        sequence = spacer + gene_1 + spacer[::-1] + gene_2 + spacer

        sequence_file = os.path.join(temp_dir, "example.fna")
        write_fasta({"example": sequence}, sequence_file)
        gene_1_end = len(spacer) + len(gene_1)
        annotation_file = os.path.join(temp_dir, "example.gbk")
        with open(annotation_file, 'w') as f:
            f.write(f"     CDS             {len(spacer) + 1}..{gene_1_end}\n")

        print(f"Created sequence file: {sequence_file}")
        print(f"Sequence length: {len(sequence)} bp")

        config = PredictorConfig(trusted_threshold=300, background_threshold=30)

        # Run the stages by hand
        print("\n1. Scanning ORFs...")
        store, _ = read_sequence(sequence_file)
        scan = ORFScanner(config).scan(store)
        print(f"Found {len(scan)} ORFs, {len(scan.trusted_training)} trusted and "
              f"{len(scan.background_training)} background training ORFs")

        print("\n2. Training Markov models...")
        trusted, background = train_models(scan, store, config)
        print(trusted)
        print(background)

        print("\n3. Scoring ORFs...")
        score_orfs(scan, store, trusted, background)
        for orf in sorted(scan, key=lambda orf: orf.score, reverse=True)[:5]:
            print(f"  {orf.start}-{orf.end} frame {orf.frame}: {orf.score:.3f}")

        # Or run the whole pipeline at once
        print("\n4. Running the full pipeline...")
        predictor = CDSPredictor(sequence_file, annotation_file, config)
        predictor.run_pipeline()
        print(format_report(predictor.histogram(), predictor.summary()))

        gff3_file, cds_file = predictor.write_output_files(temp_dir)
        print(f"GFF3 file: {gff3_file}")
        print(f"CDS file: {cds_file}")

        print("\nExample completed successfully!")


if __name__ == "__main__":
    main()
