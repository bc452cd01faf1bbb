"""Tag derivation, probing, matching and remapping."""
