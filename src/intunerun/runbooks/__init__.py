from . import device_inventory, group_tags

# CLI name -> runbook module (each exposes NAME and run())
RUNBOOKS = {
    device_inventory.NAME: device_inventory,
    group_tags.NAME: group_tags,
}
