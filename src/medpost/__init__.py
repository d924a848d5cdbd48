"""medpost: publication backend for a medical-content platform."""
