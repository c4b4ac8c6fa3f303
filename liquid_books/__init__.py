"""LiquidBooks: AI-assisted authoring and publishing of MyST eBooks."""
