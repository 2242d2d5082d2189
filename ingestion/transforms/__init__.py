"""
Row validation and series normalization for raw price/return inputs.
"""
