"""Rule-based country information chatbot."""
