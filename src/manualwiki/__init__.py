"""ManualWiki: a versioned team manual."""
