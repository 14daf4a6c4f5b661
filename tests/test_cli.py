#!/usr/bin/env python3
"""
Tests for the FASTA loader and the nw-distance command line.
"""

import logging

import pytest
from nw_distance import METHODS
from nw_distance.cli import main, read_fasta


@pytest.fixture(autouse=True)
def reset_logger():
    """main() installs a handler on the package logger; drop it after each test."""
    log = logging.getLogger("nw_distance")
    yield
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)


@pytest.fixture
def fasta_pair(tmp_path):
    seq1 = tmp_path / "seq1.fasta"
    seq2 = tmp_path / "seq2.fasta"
    seq1.write_text(">seq1 first record\nACGTA\nCGT\n>seq1b second record\nTTTT\n")
    seq2.write_text(">seq2\nACG\nACGT\n")
    return seq1, seq2


class TestReadFasta:
    """Test sequence loading."""

    def test_first_record_only(self, fasta_pair):
        seq1, seq2 = fasta_pair
        assert read_fasta(seq1) == "ACGTACGT"
        assert read_fasta(seq2) == "ACGACGT"

    def test_raw_sequence_without_header(self, tmp_path):
        path = tmp_path / "raw.txt"
        path.write_text("AC-GT\nNN\r\n")
        assert read_fasta(path) == "AC-GTNN"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.fasta"
        path.write_text("")
        assert read_fasta(path) == ""

    def test_non_bases_kept(self, tmp_path):
        """Characters are left for the engines to skip."""
        path = tmp_path / "gaps.fasta"
        path.write_text(">gapped\nA C*G\n")
        assert read_fasta(path) == "A C*G"


class TestMain:
    """Test the command line entry point."""

    def test_default_method(self, fasta_pair, capsys):
        seq1, seq2 = fasta_pair
        assert main([str(seq1), str(seq2)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 1
        method, distance, _elapsed = lines[0].split("\t")
        assert method == "iterative"
        assert distance == "2"

    def test_all_methods_agree(self, fasta_pair, capsys):
        seq1, seq2 = fasta_pair
        assert main([str(seq1), str(seq2), "--method", "all",
                     "--cache-size", "40", "--threshold", "2"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert [line.split("\t")[0] for line in lines] == list(METHODS)
        assert {line.split("\t")[1] for line in lines} == {"2"}

    def test_bounds(self, fasta_pair, capsys):
        seq1, seq2 = fasta_pair
        assert main([str(seq1), str(seq2), "--bounds", "--quiet"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[-1] == "bounds\t1\t2"

    def test_invalid_threshold(self, fasta_pair):
        seq1, seq2 = fasta_pair
        with pytest.raises(SystemExit) as excinfo:
            main([str(seq1), str(seq2), "--threshold", "0"])
        assert excinfo.value.code == 2

    def test_missing_file(self, fasta_pair, tmp_path):
        seq1, _seq2 = fasta_pair
        with pytest.raises(SystemExit) as excinfo:
            main([str(seq1), str(tmp_path / "missing.fasta")])
        assert excinfo.value.code == 2

    def test_unknown_method(self, fasta_pair):
        seq1, seq2 = fasta_pair
        with pytest.raises(SystemExit):
            main([str(seq1), str(seq2), "--method", "banded"])
