"""Foundation layer: errors, configuration and logging shared by all phases."""
