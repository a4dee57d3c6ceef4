"""Pure domain core: statuses, transitions, fees, payment obligations, authorization."""
