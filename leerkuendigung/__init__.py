"""Where do persons affected by eviction notices in Zurich move?

Descriptive analysis of the City of Zurich open-data table of persons
affected by eviction notices due to refurbishment, by year, age group and
new place of residence.
"""
