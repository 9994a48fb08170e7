"""Real-time leaderboard server for usability-testing sessions."""
