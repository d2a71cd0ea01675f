"""Data containers, I/O and processing utilities.

This package provides:
- The LabeledDataset container pairing an expression matrix with its samples
  and features annotations
- File I/O for expression matrices and annotation tables
- Parallel processing and output silencing utilities
"""
