"""Import services: mapping resolution, transformation, persistence."""
