import logging

import dxfmesh


dxfmesh.setup_logging(logging.INFO)

with open("examples/data/house.dxf", encoding="utf-8", errors="replace") as stream:
    document = dxfmesh.read(stream, dxfmesh.Config(tolerance=0.001))

result = document.to_dxf("/tmp/house_layers.dxf", dxf_version="R2010")
print(result)
