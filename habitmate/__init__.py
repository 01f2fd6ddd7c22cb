"""habitmate - daily habits with photo proof, partner streaks and a friends feed."""

__version__ = "0.1.0"
