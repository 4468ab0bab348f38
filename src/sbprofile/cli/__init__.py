"""sbprofile command-line interface."""
