"""
Network payloads. Only what is needed to build and sign transactions, there is no P2P layer.
"""
