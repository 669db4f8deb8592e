app_name = "doctor_scheduling"
app_title = "Doctor Scheduling"
app_publisher = "Doctor Scheduling contributors"
app_description = "Disponibilidad de medicos y agendamiento de citas sin doble reserva"
app_email = "dev@doctor-scheduling.example"
app_license = "mit"

# Apps
# ------------------

# required_apps = []

# Installation
# ------------

# before_install = "doctor_scheduling.install.before_install"
# after_install = "doctor_scheduling.install.after_install"

# Document Events
# ---------------
# Las invariantes de ocupacion viven en los controllers de cada DocType
# (Appointment, Doctor Availability Day), no hacen falta doc_events.

# doc_events = {
# 	"*": {
# 		"on_update": "method",
# 	}
# }

# Scheduled Tasks
# ---------------
# Sin tareas programadas: el agendamiento es request/response sincrono.

# scheduler_events = {}

# Testing
# -------

# before_tests = "doctor_scheduling.install.before_tests"

# Request Events
# ----------------
# before_request = ["doctor_scheduling.utils.before_request"]
# after_request = ["doctor_scheduling.utils.after_request"]

# Automatically update python controller files with type annotations for this app.
# export_python_type_annotations = True
