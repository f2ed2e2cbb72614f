"""Contract module -- contract schemas and the contract list screen."""
