"""LeadCadence: lead qualification scoring and outreach cadence engine."""

__version__ = "0.1.0"
