"""Auction domain: records, rules, serialization scopes and the bidding engine."""
