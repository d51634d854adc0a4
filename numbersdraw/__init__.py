"""Entry ledger and verifiable draw coordination for numbers-draw sweepstakes."""
