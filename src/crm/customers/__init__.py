"""Customer module -- customer schemas, the directory list, and the customer detail screen."""
