# Overview: Flask blueprints, one per portal area.
