class Mid360Config:
    # Ray grid (defaults follow the Livox MID-360 envelope)
    azimuth_steps = 360  # azimuth columns around the full 360 deg revolution
    elevation_steps = 40  # elevation rows across the vertical field of view
    min_elevation = -7.22  # [deg]
    max_elevation = 55.22  # [deg]

    # Scan scheduling
    scan_rate = 10  # [Hz] revolutions per second
    tick_rate = 60  # [Hz] simulation ticks per second
    section_rounding = "strict"  # "strict" rejects non integral ratios, "ceil" rounds the section size up

    # Raycast envelope
    max_distance = 70.0  # [m]
    min_distance = 0.1  # [m], blind zone and skip-self offset

    # Hit registration: detected iff range < constant * reflectivity^exponent
    hit_registration_constant = 15.23  # [m]
    hit_registration_exponent = 0.369  # [-]

    # Noise model
    angle_sigma = 0.15  # [deg], 1 sigma angular noise
    distance_sigma = 0.02  # [m], 1 sigma range noise
    master_seed = 0  # per instance seed for the counter based noise streams

    # Batch execution
    num_workers = 0  # thread pool size, 0 or 1 runs every batch inline
    batch_size = 64  # indices per parallel batch
    raycast_batch_size = 256  # rays per sequential hit registration batch

    # Output
    include_metadata = True  # expose per tick diagnostics in each frame
