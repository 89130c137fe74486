"""Protocol-neutral types shared by the translation engine."""
