"""
Fee estimation, key providers and the transaction builder.
"""
