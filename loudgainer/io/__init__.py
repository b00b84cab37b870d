"""Audio decoding modules for loudgainer."""
