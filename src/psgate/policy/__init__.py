"""Standards policy: YAML configuration of the ruleset."""
