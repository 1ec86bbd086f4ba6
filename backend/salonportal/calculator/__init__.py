# Overview: Pure bonus arithmetic (growth tiers, loyalty rules, cumulative deltas) and sales report parsing.
