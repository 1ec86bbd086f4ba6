# Overview: HTTP clients for external collaborators (hosted functions, HubSpot).
