"""Activities module - activity lifecycle and capacity."""
