"""Static compliance scanner: classification, rules, engine, aggregation."""
