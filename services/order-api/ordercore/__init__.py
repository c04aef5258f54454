"""Order placement and inventory consistency core."""
