from dicom_service.main import run

run()
