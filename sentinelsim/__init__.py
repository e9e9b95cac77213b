"""SentinelSim cybersecurity-awareness training platform."""
