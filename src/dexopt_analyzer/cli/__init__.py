"""Command-line interface: argument handling and terminal/JSON rendering."""
