"""
Escalation — time-driven ownership computed on read.

No timers fire. Each read compares elapsed hours since the card's clock
anchor against the thresholds of the first matching rule.
"""
