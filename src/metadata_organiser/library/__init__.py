"""Library items and the per-kind rules applied to them."""
