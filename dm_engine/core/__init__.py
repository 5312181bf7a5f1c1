"""Engine core: rules, state and log. No I/O beyond the JSON codec."""
