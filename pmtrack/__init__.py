"""PMTrack - preventive maintenance scheduling and work-order lifecycle."""

__version__ = "0.1.0"
