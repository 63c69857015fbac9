"""Review-side core for B2B shipment drafts: batch tracking, corrections, and Xindus hand-off."""

__version__ = "0.1.0"
