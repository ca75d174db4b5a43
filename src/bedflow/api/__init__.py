"""HTTP interface for the bedflow analytics engine."""
