"""gold-monitor — poll a gold price feed, classify it, alert and serve status."""

__version__ = "0.1.0"
